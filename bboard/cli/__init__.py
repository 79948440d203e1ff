"""BBoard CLI Module."""
