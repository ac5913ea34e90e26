"""Map surface contract, headless surface and marker/popup coordination."""
