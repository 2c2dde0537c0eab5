desc("A")
