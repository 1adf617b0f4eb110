"""Domain models, identity keys and error types shared by every component."""
