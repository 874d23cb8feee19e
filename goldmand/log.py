import logging

from colorama import Fore, Style, init

# Init colorama
init(autoreset=True)

logger = logging.getLogger("goldmand")


# ======================== Logging System ========================
def setup_logging(level="INFO"):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )


def cyan(text):
    return f"{Fore.CYAN}{text}{Style.RESET_ALL}"


def yellow(text):
    return f"{Fore.YELLOW}{text}{Style.RESET_ALL}"


def task(msg):
    logger.info(f"{Fore.YELLOW}Task{Style.RESET_ALL} {msg}")
    logger.info("-" * 32)


def step(msg):
    logger.info(f"{Fore.CYAN}[>] {Style.BRIGHT}{msg}{Style.RESET_ALL}")


def success(msg):
    logger.info(f"{Fore.GREEN}[+] {msg}{Style.RESET_ALL}")


def warning(msg):
    logger.warning(f"{Fore.YELLOW}Warning{Style.RESET_ALL} {msg}")


def error(msg):
    logger.error(f"{Fore.RED}{msg}{Style.RESET_ALL}")


# Banner
def print_banner(accounts, interval):
    banner = f"""
{Fore.GREEN}========================================================================={Fore.RESET}
{Fore.CYAN}                  Goldmand Bot - WAX Auto Mining{Fore.RESET}
{Fore.GREEN}========================================================================={Fore.RESET}
"""
    print(banner)
    names = ", ".join(cyan(acc.name) for acc in accounts) or "no accounts"
    logger.info(f"Goldmand Bot running for {names}")
    logger.info(f"Running every {interval} minutes")
