desc("shared from the config directory")
