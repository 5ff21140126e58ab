"""Domain services shared by the REST handlers."""
