from __future__ import annotations

import logging
from typing import Sequence

from .chroot import chroot_cmd, root_argv, under_root
from .command import command_exists, run_cmd

logger = logging.getLogger(__name__)

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def apt_update(root: str = "/", *, dry_run: bool = False) -> None:
    chroot_cmd(root, ["apt-get", "update", "-qq"], env=APT_ENV, dry_run=dry_run)


def apt_install(
    root: str,
    packages: Sequence[str],
    *,
    with_recommends: bool = True,
    dry_run: bool = False,
) -> None:
    if not packages:
        return
    argv = [
        "apt-get",
        "install",
        "-y",
    ]
    if not with_recommends:
        argv.append("--no-install-recommends")
    chroot_cmd(
        root,
        [*argv, *packages],
        env=APT_ENV,
        dry_run=dry_run,
    )


def apt_remove(root: str, packages: Sequence[str], *, autoremove: bool = True, dry_run: bool = False) -> None:
    if not packages:
        return
    chroot_cmd(root, ["apt-get", "remove", "-y", *packages], env=APT_ENV, dry_run=dry_run)
    if autoremove:
        chroot_cmd(root, ["apt-get", "autoremove", "-y"], check=False, env=APT_ENV, dry_run=dry_run)


def apt_has_package(root: str, package: str, *, dry_run: bool = False) -> bool:
    """Return True if apt knows about a package name in root.

    This is useful for optional packages that may only exist in some repos.
    """
    if dry_run:
        # Be permissive in dry-run so planning doesn't fail.
        return True
    r = run_cmd(root_argv(root, ["apt-cache", "show", package]), check=False)
    return r.returncode == 0


def fetch_keyring(
    root: str,
    key_url: str,
    keyring: str,
    *,
    dry_run: bool = False,
) -> bool:
    """Download an ASCII-armored key and store it dearmored at *keyring* (once).

    Returns True when a new keyring file was written.
    """

    dst = under_root(root, keyring)
    if dst.exists():
        logger.info("Signing key already present: %s", keyring)
        return False

    fetcher = ["wget", "-qO-", key_url] if command_exists("wget") else ["curl", "-fsSL", key_url]
    armored = run_cmd(fetcher, dry_run=dry_run)

    if not dry_run:
        dst.parent.mkdir(parents=True, exist_ok=True)
    run_cmd(["gpg", "--batch", "--yes", "--dearmor", "-o", str(dst)], input_text=armored.stdout, dry_run=dry_run)
    if not dry_run:
        dst.chmod(0o644)
        logger.info("Signing key written to %s", keyring)
    return True


def add_vendor_repo(
    root: str,
    *,
    list_name: str,
    line: str,
    key_url: str,
    keyring: str,
    dry_run: bool = False,
) -> bool:
    """Configure a signed third-party apt repository.

    The key and the ``sources.list.d/<list_name>`` file are each written only
    when absent. Returns True when the list file was created.
    """

    fetch_keyring(root, key_url, keyring, dry_run=dry_run)

    p = under_root(root, "/etc/apt/sources.list.d") / list_name
    if p.exists():
        logger.info("Repository already configured: %s", str(p))
        return False
    if dry_run:
        logger.info("Would write %s: %s", str(p), line)
        return True
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(line + "\n", encoding="utf-8")
    logger.info("Configured apt repository %s", str(p))
    return True


def remove_vendor_repo(root: str, *, list_name: str, keyring: str, dry_run: bool = False) -> list[str]:
    removed: list[str] = []
    for p in (under_root(root, "/etc/apt/sources.list.d") / list_name, under_root(root, keyring)):
        if not p.exists():
            continue
        if dry_run:
            logger.info("Would remove %s", str(p))
        else:
            p.unlink()
            logger.info("Removed %s", str(p))
        removed.append(str(p))
    return removed
