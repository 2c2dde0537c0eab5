desc("file tool-1-1")


@run
def tool_1_1(context):
    return 0 if context.find_data("greeting.txt") else 4
