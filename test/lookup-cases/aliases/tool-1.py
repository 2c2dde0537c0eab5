desc("aliased tool")


@run
def tool_1(context):
    return 0
