"""marketspine command-line interface."""
