"""Wave command line interface."""
