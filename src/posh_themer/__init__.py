"""posh-themer: manage the Oh My Posh theme block in a shell rc file."""

__version__ = "0.1.0"
