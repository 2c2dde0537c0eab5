desc("root of the normal hierarchy")
