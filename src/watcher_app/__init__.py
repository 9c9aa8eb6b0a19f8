"""Terminal front end for quota_watcher."""
