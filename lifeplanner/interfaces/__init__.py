"""Abstract repository interfaces."""
