"""Pure domain primitives shared by every reporting package."""
