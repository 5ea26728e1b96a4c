"""core/ -- Kernel modules (configuration). No imports from auth/."""
