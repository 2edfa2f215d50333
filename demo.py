#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn Numscript Step by Step

This is a pedagogical demonstration that teaches how Numscript moves money
through the in-memory ledger. Each step builds on the previous one. Press
Enter to advance.

WHAT YOU'LL LEARN:
  1-4:   Foundation      - The empty ledger, @world, deposits, rejections
  5-8:   Numscript       - Atomicity, waterfalls, splits, multi-asset sends
  9-10:  Queries         - Metadata, patterns, aggregated balances
  11-12: Demo Sessions   - Config-driven steps, conservation proof, reset

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import sys

from numscript_ledger import (
    # Core
    Ledger, Posting, WORLD_ACCOUNT,
    # Errors
    InsufficientFunds, UnsupportedOperation,
    # Numscript
    execute_numscript, validate_numscript, parse_postings_from_numscript,
    # Queries
    TransactionFilter, AccountFilter,
    # Demo sessions
    DemoConfig, DemoSession,
    # Display
    format_amount,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class TutorialConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    # Amounts in cents (USD/2)
    alice_deposit: int = 10000
    bob_deposit: int = 5000
    checkout_amount: int = 7500
    promo_credit: int = 1500
    platform_fee: str = "2.5%"

    # FX leg
    usd_to_convert: int = 10000
    eur_received: int = 9200


CONFIG = TutorialConfig()

# Global state for interactive mode
QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def show_balances(ledger: Ledger, asset: str = "USD/2"):
    for account in ledger.list_accounts():
        balance = account.get_balance(asset)
        print(f"  {account.address:<32} {format_amount(balance, asset):>14}")


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-4)
# ============================================================================

def step_01_empty_ledger():
    """Create an empty ledger and meet @world."""
    step_header(1, "The Empty Ledger",
        "Understand that a ledger starts with a single account: @world.")

    print("""
    A ledger records balances of ACCOUNTS in ASSETS:

    1. ACCOUNTS - Colon-separated addresses like @users:alice:wallet
    2. ASSETS   - Identifiers like USD/2 (cents) or COIN (no decimals)
    3. @world   - The source and sink of all value. The only account
                  that may always go negative.

    Accounts are created the first time a transaction touches them.
    """)

    wait_for_enter()

    print(">>> ledger = Ledger('tutorial', initial_time=datetime(2025, 1, 1, 9, 0), verbose=True)")
    ledger = Ledger("tutorial", initial_time=CONFIG.start_time, verbose=True)

    section_header("Initial State")
    print(f"Ledger:        {ledger!r}")
    print(f"Current time:  {ledger.current_time}")
    print(f"Accounts:      {[a.address for a in ledger.list_accounts()]}")
    print(f"Transactions:  {ledger.get_transaction_count()}")

    return ledger


def step_02_first_deposit(ledger: Ledger):
    """Bring money into the ledger from @world."""
    step_header(2, "The First Deposit",
        "Money enters through @world, so @world goes negative.")

    script = f"""
    send [USD/2 {CONFIG.alice_deposit}] (
        source = @world
        destination = @users:alice:wallet
    )
    set_tx_meta("type", "DEPOSIT")
    """
    print(">>> execute_numscript(script, ledger)")
    print(script)
    execute_numscript(script, ledger)

    execute_numscript(
        "send [USD/2 {AMOUNT}] ( source = @world destination = $user )",
        ledger,
        {"AMOUNT": CONFIG.bob_deposit, "user": "@users:bob:wallet"},
    )

    section_header("Balances")
    show_balances(ledger)

    section_header("Key Insight")
    print("""
    {AMOUNT} and $user are placeholders. They are substituted into the
    script text before it is parsed, so the same script can be reused.
    """)
    return ledger


def step_03_transfer(ledger: Ledger):
    """A plain transfer between users."""
    step_header(3, "Transfers",
        "A send debits its source and credits its destination.")

    execute_numscript("""
        send [USD/2 2500] (
            source = @users:alice:wallet
            destination = @users:bob:wallet
        )
    """, ledger)

    section_header("Balances")
    show_balances(ledger)
    return ledger


def step_04_rejected(ledger: Ledger):
    """An overdraft is rejected."""
    step_header(4, "Insufficient Funds",
        "Ordinary accounts can never go below zero unless allowed.")

    script = """
        send [USD/2 1000000] (
            source = @users:bob:wallet
            destination = @users:alice:wallet
        )
    """
    try:
        execute_numscript(script, ledger)
    except InsufficientFunds as e:
        print(f"Rejected: {e}")
        print(f"Details:  {e.details}")

    section_header("Nothing Changed")
    show_balances(ledger)
    return ledger


# ============================================================================
# PHASE 2: NUMSCRIPT (Steps 5-8)
# ============================================================================

def step_05_atomicity(ledger: Ledger):
    """Every send in a script commits together or not at all."""
    step_header(5, "Atomicity",
        "A script becomes a single transaction: all postings or none.")

    script = """
        send [USD/2 1000] ( source = @users:alice:wallet destination = @users:carol:wallet )
        send [USD/2 9999] ( source = @users:carol:wallet destination = @users:dave:wallet )
    """
    print(script)
    count_before = ledger.get_transaction_count()
    try:
        execute_numscript(script, ledger)
    except InsufficientFunds as e:
        print(f"Rejected: {e}")

    section_header("Result")
    print(f"Transactions before: {count_before}, after: {ledger.get_transaction_count()}")
    print(f"Carol exists: {ledger.get_account('@users:carol:wallet') is not None}")
    print("""
    The first send was valid on its own, yet carol was never credited.
    The second send failed, so the whole script was discarded.
    """)

    section_header("Direct Postings")
    print(">>> ledger.create_transaction([Posting(...), Posting(...)])")
    tx = ledger.create_transaction([
        Posting("@users:alice:wallet", "@users:carol:wallet", "USD/2", 500),
        Posting("@users:carol:wallet", "@users:dave:wallet", "USD/2", 500),
    ], metadata={"type": "RELAY"})
    print(tx)
    return ledger


def step_06_waterfall(ledger: Ledger):
    """Draw from several sources in order."""
    step_header(6, "Waterfall Sources",
        "Sources are drained in order; max caps and overdraft change how much each gives.")

    execute_numscript(
        f"send [USD/2 {CONFIG.promo_credit}] ( source = @world destination = @promo:alice )",
        ledger)

    script = f"""
    send [USD/2 {CONFIG.checkout_amount}] (
        source = {{
            max [USD/2 1000] from @promo:alice
            @users:alice:wallet
            @credit:alice allowing unbounded overdraft
        }}
        destination = {{
            {CONFIG.platform_fee} to @platform:fees
            remaining to @merchants:acme
        }}
    )
    set_tx_meta("type", "CHECKOUT")
    """
    print(script)

    section_header("Flow Preview (best-effort scan, no execution)")
    for posting in parse_postings_from_numscript(script):
        print(f"  {posting.source} -> {posting.destination}: {posting.amount}")

    tx = execute_numscript(script, ledger)

    section_header("Resulting Postings")
    for posting in tx.postings:
        print(f"  {posting!r}")

    section_header("Balances")
    show_balances(ledger)
    return ledger


def step_07_split_rules(ledger: Ledger):
    """Percentages, fractions and kept funds."""
    step_header(7, "Splitting Destinations",
        "Portions round down; the last destination takes the remainder.")

    tx = execute_numscript("""
        send [USD/2 1000] (
            source = @merchants:acme
            destination = {
                1/3 to @partners:a
                1/3 to @partners:b
                remaining to @partners:c
            }
        )
    """, ledger)
    for posting in tx.postings:
        print(f"  {posting.destination:<20} {posting.amount}")
    print("\n  1000 / 3 = 333 rem 1, so @partners:c receives 334.")

    section_header("Send All")
    try:
        execute_numscript(
            "send [USD/2 *] ( source = @partners:a destination = @world )", ledger)
    except UnsupportedOperation as e:
        print(f"Unsupported: {e}")
    return ledger


def step_08_fx(ledger: Ledger):
    """Two assets in one script using a liquidity account that may overdraw."""
    step_header(8, "Multi-Asset Sends",
        "A conversion is two sends in one transaction.")

    ledger.advance_time(CONFIG.start_time + timedelta(days=1))
    execute_numscript(
        "send [USD/2 {USD}] ( source = @world destination = @users:erin:wallet )",
        ledger, {"USD": CONFIG.usd_to_convert})

    tx = execute_numscript("""
        send [USD/2 {USD}] (
            source = @users:erin:wallet
            destination = @fx:usd
        )
        send [EUR/2 {EUR}] (
            source = @fx:eur allowing unbounded overdraft
            destination = @users:erin:wallet
        )
        set_tx_meta("type", "FX")
        set_tx_meta("rate", "0.92")
    """, ledger, {"USD": CONFIG.usd_to_convert, "EUR": CONFIG.eur_received})

    section_header("Erin's Balances")
    for asset, balance in ledger.get_account_balances("@users:erin:wallet").items():
        print(f"  {asset:<8} {format_amount(balance, asset)}")
    print(f"\n  @fx:eur  {format_amount(ledger.get_balance('@fx:eur', 'EUR/2'), 'EUR/2')}")
    print(f"  Committed at {tx.timestamp}")
    return ledger


# ============================================================================
# PHASE 3: QUERIES (Steps 9-10)
# ============================================================================

def step_09_metadata(ledger: Ledger):
    """Tag transactions and accounts, then filter on the tags."""
    step_header(9, "Metadata",
        "set_tx_meta tags the transaction; set_account_meta tags accounts.")

    execute_numscript("""
        send [USD/2 100] ( source = @platform:fees destination = @platform:reserve )
        set_tx_meta("type", "SWEEP")
        set_account_meta(@platform:reserve, "purpose", "chargebacks")
    """, ledger)

    section_header("Transactions of type CHECKOUT or FX")
    for tx_type in ("CHECKOUT", "FX"):
        for tx in ledger.list_transactions(TransactionFilter(metadata={"type": tx_type})):
            print(f"  #{tx.id} {tx_type} with {len(tx.postings)} postings")

    section_header("Accounts tagged purpose=chargebacks")
    for account in ledger.list_accounts(AccountFilter(metadata={"purpose": "chargebacks"})):
        print(f"  {account.address}")
    return ledger


def step_10_patterns(ledger: Ledger):
    """Prefix and wildcard address patterns."""
    step_header(10, "Address Patterns",
        "A trailing colon matches a prefix; '::' matches any single segment.")

    for pattern in ("users:", "users::wallet", "platform:fees"):
        print(f"\n>>> ledger.get_balances({pattern!r})")
        for result in ledger.get_balances(pattern):
            print(f"  {result.address:<28} {format_amount(result.balance, result.asset)}")

    section_header("Aggregated")
    for total in ledger.get_aggregated_balances(["users:", "partners:"]):
        print(f"  {total.asset}: {format_amount(total.balance, total.asset)} "
              f"across {len(total.accounts)} accounts")
    return ledger


# ============================================================================
# PHASE 4: DEMO SESSIONS (Steps 11-12)
# ============================================================================

REMITTANCE_DEMO = {
    "id": "remittance",
    "name": "Cross-border remittance",
    "description": "Fund a sender, transfer with a fee",
    "accounts": [
        {"address": "@world", "name": "World", "color": "slate"},
        {"address": "@senders:{SENDER}:wallet", "name": "Sender", "color": "blue"},
        {"address": "@recipients:{RECIPIENT}:wallet", "name": "Recipient", "color": "green"},
        {"address": "@platform:fees", "name": "Fees", "color": "amber"},
    ],
    "variables": {"SENDER": "s-001", "RECIPIENT": "r-001"},
    "transactionSteps": [
        {
            "txType": "DEPOSIT",
            "label": "Fund sender",
            "description": "Sender deposits $500",
            "numscript": """
                send [USD/2 50000] ( source = @world destination = @senders:{SENDER}:wallet )
                set_tx_meta("type", "DEPOSIT")
            """,
        },
        {
            "txType": "TRANSFER",
            "label": "Send money",
            "description": "Transfer $200 with a 1% fee",
            "numscript": """
                send [USD/2 20000] (
                    source = @senders:{SENDER}:wallet
                    destination = { 1% to @platform:fees remaining to @recipients:{RECIPIENT}:wallet }
                )
                set_tx_meta("type", "TRANSFER")
            """,
            "queries": [
                {"queryType": "balance", "title": "Recipient", "addressFilter": "recipients:"},
            ],
        },
    ],
    "usefulQueries": [
        {"queryType": "transactions", "title": "Transfers",
         "transactionFilter": {"metadata": {"type": "TRANSFER"}}},
    ],
}


def step_11_demo_session():
    """Drive a configured demo step by step."""
    step_header(11, "Demo Sessions",
        "A DemoConfig lists accounts, variables and scripted steps.")

    config = DemoConfig.from_dict(REMITTANCE_DEMO)
    session = DemoSession(config, initial_time=CONFIG.start_time)
    print(f">>> {session!r}")

    for index, step in enumerate(config.transaction_steps):
        section_header(f"{step.label}: {step.description}")
        tx = session.execute_step(index)
        print(f"  committed #{tx.id}")
        for query in step.queries:
            result = session.run_query(query)
            for row in result.data:
                print(f"  {query.title}: {row}")

    section_header("Account Overview")
    for definition in config.accounts:
        print(f"  {definition.name:<10} {session.get_formatted_balance(definition.address)}")

    print(f"\n>>> {session!r}")
    return session


def step_12_conservation(ledger: Ledger, session: DemoSession):
    """Prove that value is conserved, then start over."""
    step_header(12, "Conservation and Reset",
        "Every asset sums to zero across all accounts, @world included.")

    for name, subject in (("tutorial", ledger), ("remittance", session.ledger)):
        report = subject.verify_double_entry()
        print(f"  {name:<12} valid={report['valid']} supplies={report['supplies']}")

    section_header("Validation Without Execution")
    for script in ("send [USD/2 1] ( source = @a destination = @b )", "set_tx_meta(\"k\", \"v\")"):
        result = validate_numscript(script)
        print(f"  valid={result.valid} errors={list(result.errors)}")

    section_header("Reset")
    session.reset()
    print(f">>> session.reset()  ->  {session!r}")
    print(f"World balance after reset: {session.ledger.get_balance(WORLD_ACCOUNT, 'USD/2')}")


# ============================================================================
# MAIN
# ============================================================================

def main():
    print("=" * 70)
    print("       NUMSCRIPT LEDGER TUTORIAL")
    print("=" * 70)
    print("""
    This tutorial walks through the ledger one concept at a time.

      1-4:   Foundation      - Empty ledger, @world, deposits, rejections
      5-8:   Numscript       - Atomicity, waterfalls, splits, multi-asset
      9-10:  Queries         - Metadata, patterns, aggregation
      11-12: Demo Sessions   - Config-driven steps, conservation, reset
    """)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    # Phase 1: Foundation
    ledger = step_01_empty_ledger()
    wait_for_enter()

    ledger = step_02_first_deposit(ledger)
    wait_for_enter()

    ledger = step_03_transfer(ledger)
    wait_for_enter()

    ledger = step_04_rejected(ledger)
    wait_for_enter()

    # Phase 2: Numscript
    ledger = step_05_atomicity(ledger)
    wait_for_enter()

    ledger = step_06_waterfall(ledger)
    wait_for_enter()

    ledger = step_07_split_rules(ledger)
    wait_for_enter()

    ledger = step_08_fx(ledger)
    wait_for_enter()

    # Phase 3: Queries
    ledger = step_09_metadata(ledger)
    wait_for_enter()

    ledger = step_10_patterns(ledger)
    wait_for_enter()

    # Phase 4: Demo sessions
    session = step_11_demo_session()
    wait_for_enter()

    step_12_conservation(ledger, session)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    You've learned:

    FOUNDATION
      - @world is where value enters and leaves
      - Ordinary accounts cannot overdraw

    NUMSCRIPT
      - A script commits as one atomic transaction
      - Waterfalls drain sources in order
      - Portions round down and the remainder goes last

    QUERIES
      - Metadata filters for transactions and accounts
      - Prefix and wildcard address patterns

    Next steps:
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
