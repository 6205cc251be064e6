"""Pure geometric primitives, unit conversion and display formatting."""
