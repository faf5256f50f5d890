"""Process plumbing for the rental quote scraper: settings, stores, entry point."""
