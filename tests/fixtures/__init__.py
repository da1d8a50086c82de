"""Synthetic tile cache fixtures (bundles, conf.xml) written into pytest tmp dirs."""
