"""Define the domain models of the program."""
