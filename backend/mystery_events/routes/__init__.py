# Infrastructure routes (health, metrics) live in main; all application routes are in v1/
