"""Reports built from stored timesheets."""
