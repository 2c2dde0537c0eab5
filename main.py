import sys

from rich.pretty import pprint

from quiver import *


def demo(dsl):
    dsl.desc("Demo tools")

    @dsl.tool("greet")
    def greet():
        dsl.desc("Greets someone")
        dsl.flag("loud", "-l", "--[no-]loud", desc="Shout the greeting")
        dsl.optional_arg("name", default="world")

        @dsl.run
        def run(context):
            greeting = f"hello {context['name']}"
            print(greeting.upper() if context["loud"] else greeting)


if __name__ == '__main__':
    setup_logging()
    cli = CLI(colorful=True).add_search_path_hierarchy().add_block(demo)
    pprint(cli.loader.lookup(sys.argv[1:])[0])
    sys.exit(cli.run(*sys.argv[1:]))
