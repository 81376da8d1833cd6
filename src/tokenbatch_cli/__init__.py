"""tokenbatch command line interface."""
