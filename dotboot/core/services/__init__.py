"""Services — identity resolution, ownership and reporting."""
