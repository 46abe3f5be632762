"""Access control and content protection for shared notes and passwords."""
