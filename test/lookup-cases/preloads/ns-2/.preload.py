VALUE = "ns-2"
