alias_tool("t1", "tool-1")
alias_tool("loop-a", "loop-b")
alias_tool("loop-b", "loop-a")
alias_tool("deep", ["collection", "inner"])


@tool("collection")
def collection():
    @tool("inner")
    def inner():
        desc("inner tool")
