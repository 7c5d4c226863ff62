"""Model gateway and conversation loop services."""
