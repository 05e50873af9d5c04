"""Three-tier credential issuance."""
