"""Core building blocks: config, logging, exceptions, models, field mapping."""
