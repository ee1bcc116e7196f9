type ChainId = int
