"""Login state machine: progress tracking, browser driver and orchestration."""
