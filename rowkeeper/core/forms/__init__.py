"""Forms for validating request bodies."""
