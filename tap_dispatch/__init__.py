"""TAP emission engine and dynamic test dispatcher."""
