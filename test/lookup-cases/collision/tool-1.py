desc("from the file")
