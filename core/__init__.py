"""core/ -- Process configuration. Imports nothing from api/, auth/ or posts/."""
