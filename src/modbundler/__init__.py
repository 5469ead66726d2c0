"""N-way structural merge of game mods into a single bundle."""

__version__ = "0.1.0"
