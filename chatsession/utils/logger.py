import logging
import os

def setup_logger(name='chatsession'):
    """Set up a logger with console and file output.
    
    Creates a logger that writes:
    - INFO and above to console
    - DEBUG and above to file (logs/session.log)
    
    Args:
        name (str, optional): Logger name. Defaults to 'chatsession'
        
    Returns:
        logging.Logger: Configured logger instance
        
    Side Effects:
        - Creates logs directory if it doesn't exist
          (CHATSESSION_LOG_DIR overrides the location)
        - Creates/appends to session.log file
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(logging.DEBUG)

    # Create formatters and handlers
    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(name)s - %(message)s')

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(logging.INFO)

    # File handler - ensure log directory exists
    log_dir = os.environ.get('CHATSESSION_LOG_DIR') or \
        os.path.join(os.path.dirname(os.path.dirname(__file__)), 'logs')
    os.makedirs(log_dir, exist_ok=True)
    file_handler = logging.FileHandler(os.path.join(log_dir, 'session.log'), encoding='utf-8')
    file_handler.setFormatter(formatter)
    file_handler.setLevel(logging.DEBUG)

    # Add handlers to logger
    logger.addHandler(console_handler)
    logger.addHandler(file_handler)
    logger.propagate = False

    return logger


def set_console_level(level):
    """Change the console threshold of every chatsession logger.
    
    Used by the terminal client, whose output shares the console with
    the log stream.
    
    Args:
        level (int): logging level for console handlers
    """
    for name, logger in logging.Logger.manager.loggerDict.items():
        if not name.startswith('chatsession') or not isinstance(logger, logging.Logger):
            continue
        for handler in logger.handlers:
            if type(handler) is logging.StreamHandler:
                handler.setLevel(level)
