"""SecureMeet multi-factor login backend."""
