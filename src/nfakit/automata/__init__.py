from loguru import logger

# Library code stays quiet unless the application opts in with
# logger.enable("nfakit")
logger.disable("nfakit")
