"""Pure domain helpers shared by every ETC package."""
