"""layercake core: composition engine, configuration and errors."""
