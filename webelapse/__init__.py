"""Web page time-lapse recorder with duplicate-frame backoff."""
