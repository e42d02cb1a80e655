#!/usr/bin/env python3
"""
Generate a synthetic pNode snapshot (registry wire shape) for the dashboard.

Usage:
  python3 -m sim.gen_nodes --count 120 --seed 42 --out sim/snapshot.json
  python3 -m sim.gen_nodes --count 40 --out sim/snapshot.yaml --no-coords 0.3
"""
import argparse, json, random, time
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from topo import geo

# -----------------------------
# Tunables
# -----------------------------
COUNTRY_WEIGHTS = {
    "US": 0.22, "DE": 0.14, "FR": 0.06, "GB": 0.06, "NL": 0.06, "FI": 0.03,
    "SG": 0.05, "JP": 0.04, "IN": 0.03, "AU": 0.03, "BR": 0.03, "CA": 0.04,
    "PL": 0.03, "ZA": 0.02, "KR": 0.02, "AR": 0.01, "NG": 0.01,
}

COUNTRY_NAMES = {
    "US": "United States", "DE": "Germany", "FR": "France", "GB": "United Kingdom",
    "NL": "Netherlands", "FI": "Finland", "SG": "Singapore", "JP": "Japan",
    "IN": "India", "AU": "Australia", "BR": "Brazil", "CA": "Canada",
    "PL": "Poland", "ZA": "South Africa", "KR": "South Korea", "AR": "Argentina",
    "NG": "Nigeria",
}

CITIES = {
    "US": ["Ashburn", "Dallas", "San Jose", "Chicago"], "DE": ["Frankfurt", "Nuremberg", "Falkenstein"],
    "FR": ["Paris", "Roubaix"], "GB": ["London", "Manchester"], "NL": ["Amsterdam"],
    "FI": ["Helsinki"], "SG": ["Singapore"], "JP": ["Tokyo", "Osaka"], "IN": ["Mumbai", "Bangalore"],
    "AU": ["Sydney"], "BR": ["São Paulo"], "CA": ["Toronto", "Montreal"], "PL": ["Warsaw"],
    "ZA": ["Johannesburg"], "KR": ["Seoul"], "AR": ["Buenos Aires"], "NG": ["Lagos"],
}

VERSIONS = ["0.6.0", "0.7.1", "0.7.3", "0.8.0-trynet.20251201.abcdef123456"]
STATUS_WEIGHTS = {"online": 0.82, "offline": 0.15, "loading": 0.03}
PORT = 9001

# -----------------------------
def choice_weighted(d: Dict[str, float]) -> str:
    items = list(d.items())
    r = random.random() * sum(w for _, w in items)
    s = 0.0
    for k, w in items:
        s += w
        if r <= s:
            return k
    return items[-1][0]

def rnd(a: float, b: float, nd: int = 2) -> float:
    return round(random.uniform(a, b), nd)

def maybe(p: float) -> bool:
    return random.random() < p

def gen_ip(used: set) -> str:
    while True:
        ip = f"{random.randint(11, 223)}.{random.randint(0, 255)}.{random.randint(0, 255)}.{random.randint(1, 254)}"
        if ip not in used:
            used.add(ip)
            return ip

def gen_pubkey() -> str:
    alphabet = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
    return "".join(random.choice(alphabet) for _ in range(44))

def gen_location(no_coords: float, no_geo: float) -> Optional[Dict[str, Any]]:
    if maybe(no_geo):
        return None
    code = choice_weighted(COUNTRY_WEIGHTS)
    loc: Dict[str, Any] = {
        "country": COUNTRY_NAMES[code],
        "countryCode": code,
        "city": random.choice(CITIES[code]),
    }
    if not maybe(no_coords):
        lng, lat = geo.centroid_for_country(code)
        loc["lat"] = round(max(-89.0, min(89.0, lat + random.uniform(-3, 3))), 4)
        loc["lng"] = round(max(-179.0, min(179.0, lng + random.uniform(-4, 4))), 4)
    return loc

def gen_stats() -> Dict[str, Any]:
    ram_total = random.choice([8, 16, 32, 64]) * 1024 ** 3
    return {
        "cpu_percent": rnd(0.5, 95.0, 1),
        "ram_used": int(ram_total * random.uniform(0.1, 0.9)),
        "ram_total": ram_total,
        "file_size": random.randint(1, 500) * 1024 ** 3,
        "uptime": random.randint(60, 60 * 86400),
    }

def gen_node(i: int, used_ips: set, no_coords: float, no_geo: float) -> Dict[str, Any]:
    ip = gen_ip(used_ips)
    status = choice_weighted(STATUS_WEIGHTS)
    node: Dict[str, Any] = {
        "address": f"{ip}:{PORT}",
        "pubkey": gen_pubkey() if maybe(0.9) else None,
        "label": f"pnode-{i:03d}",
        "status": status,
        "location": gen_location(no_coords, no_geo),
        "version": {"version": random.choice(VERSIONS)},
    }
    if status == "online":
        node["stats"] = gen_stats()
    return node

def attach_peers(nodes: List[Dict[str, Any]], now: int, mean_peers: int, mutual: float, stale: float) -> None:
    """Random peer lists; a share of links is reported from both ends."""
    addrs = [n["address"] for n in nodes]
    by_addr = {n["address"]: n for n in nodes}
    for n in nodes:
        n.setdefault("pods", {"pods": []})
    for n in nodes:
        if n["status"] != "online":
            continue
        k = min(len(addrs) - 1, max(0, int(random.gauss(mean_peers, mean_peers / 3))))
        for target in random.sample([a for a in addrs if a != n["address"]], k):
            seen = now - (random.randint(301, 7200) if maybe(stale) else random.randint(0, 240))
            n["pods"]["pods"].append({"address": target, "last_seen_timestamp": seen})
            other = by_addr[target]["pods"]["pods"]
            if maybe(mutual) and not any(p["address"] == n["address"] for p in other):
                other.append({"address": n["address"], "last_seen_timestamp": seen})
    # a few dangling peers that no registry node answers for
    for n in random.sample(nodes, k=min(len(nodes), 3)):
        n["pods"]["pods"].append({"address": f"203.0.113.{random.randint(1, 254)}:{PORT}", "last_seen_timestamp": now})

def generate(count: int, seed: Optional[int] = None, now: Optional[int] = None, mean_peers: int = 4,
             mutual: float = 0.6, stale: float = 0.2, no_coords: float = 0.2, no_geo: float = 0.05) -> Dict[str, Any]:
    if seed is not None:
        random.seed(seed)
    now = int(time.time()) if now is None else now
    used: set = set()
    nodes = [gen_node(i, used, no_coords, no_geo) for i in range(1, count + 1)]
    attach_peers(nodes, now, mean_peers, mutual, stale)
    return {"ts": now, "nodes": nodes}

def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--count", type=int, default=120)
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--out", default="sim/snapshot.json")
    ap.add_argument("--peers", type=int, default=4, help="Mean peer-list length for online nodes")
    ap.add_argument("--mutual", type=float, default=0.6, help="Share of links reported from both ends")
    ap.add_argument("--stale", type=float, default=0.2, help="Share of peer entries older than the active window")
    ap.add_argument("--no-coords", type=float, default=0.2, help="Share of located nodes without lat/lng")
    ap.add_argument("--no-geo", type=float, default=0.05, help="Share of nodes without any location")
    args = ap.parse_args()

    snap = generate(args.count, seed=args.seed, mean_peers=args.peers, mutual=args.mutual,
                    stale=args.stale, no_coords=args.no_coords, no_geo=args.no_geo)
    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    if out.suffix.lower() in (".yaml", ".yml"):
        out.write_text(yaml.safe_dump(snap, sort_keys=False, allow_unicode=True), encoding="utf-8")
    else:
        out.write_text(json.dumps(snap, indent=2, ensure_ascii=False), encoding="utf-8")
    print(f"Wrote {len(snap['nodes'])} nodes to {out.as_posix()}")

if __name__ == "__main__":
    main()
