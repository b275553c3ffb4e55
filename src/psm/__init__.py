"""psm - proportional memory usage of running programs, from /proc/<pid>/smaps."""
