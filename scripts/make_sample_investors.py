from __future__ import annotations

import argparse
import os

import numpy as np
import pandas as pd


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--out", required=True)
    ap.add_argument("--principal", type=float, default=150_000.0)
    ap.add_argument("--investors", type=int, default=3)
    ap.add_argument("--seed", type=int, default=0)
    ap.add_argument(
        "--concentration",
        type=float,
        default=2.0,
        help="Dirichlet concentration; larger values give more even stakes.",
    )
    args = ap.parse_args()

    if args.investors < 1:
        raise SystemExit("--investors must be >= 1")
    if args.principal <= 0:
        raise SystemExit("--principal must be > 0")

    rng = np.random.default_rng(args.seed)
    weights = rng.dirichlet(np.full(args.investors, args.concentration))

    amounts = np.round(weights * args.principal, 2)
    # Rounding to cents can drift; the last investor takes the remainder so stakes sum to the principal.
    amounts[-1] = round(args.principal - float(amounts[:-1].sum()), 2)

    df = pd.DataFrame(
        {
            "id": np.arange(1, args.investors + 1),
            "name": [f"Investor {i}" for i in range(1, args.investors + 1)],
            "investment_amount": amounts,
        }
    )

    d = os.path.dirname(args.out)
    if d:
        os.makedirs(d, exist_ok=True)
    df.to_csv(args.out, index=False)
    print(f"Wrote {len(df)} investors totalling {df['investment_amount'].sum():.2f} to {args.out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
