# Copyright (C) 2012 Canonical Ltd.
# Copyright (C) 2012 Hewlett-Packard Development Company, L.P.
#
# This file is part of coreos-metadata. See LICENSE for license information.

import logging
import os
import pwd

from coreosmetadata import atomic_helper, util

LOG = logging.getLogger(__name__)

# Keys written by coreos-metadata live between these two lines of the
# authorized_keys file. Everything outside of them belongs to the user.
MANAGED_BEGIN = "# BEGIN coreos-metadata managed keys"
MANAGED_END = "# END coreos-metadata managed keys"

# this list has been filtered out from keytypes of OpenSSH source
# openssh-8.3p1/sshkey.c, dropping the keytypes with the sigonly flag.
#
# dsa, rsa, ecdsa and ed25519 are added for legacy, as they are valid
# public keys in some old distros.
VALID_KEY_TYPES = (
    "dsa",
    "rsa",
    "ecdsa",
    "ed25519",
    "ecdsa-sha2-nistp256-cert-v01@openssh.com",
    "ecdsa-sha2-nistp256",
    "ecdsa-sha2-nistp384-cert-v01@openssh.com",
    "ecdsa-sha2-nistp384",
    "ecdsa-sha2-nistp521-cert-v01@openssh.com",
    "ecdsa-sha2-nistp521",
    "sk-ecdsa-sha2-nistp256-cert-v01@openssh.com",
    "sk-ecdsa-sha2-nistp256@openssh.com",
    "sk-ssh-ed25519-cert-v01@openssh.com",
    "sk-ssh-ed25519@openssh.com",
    "ssh-dss-cert-v01@openssh.com",
    "ssh-dss",
    "ssh-ed25519-cert-v01@openssh.com",
    "ssh-ed25519",
    "ssh-rsa-cert-v01@openssh.com",
    "ssh-rsa",
    "ssh-xmss-cert-v01@openssh.com",
    "ssh-xmss@openssh.com",
)


class AuthKeyLine:
    def __init__(
        self, source, keytype=None, base64=None, comment=None, options=None
    ):
        self.base64 = base64
        self.comment = comment
        self.options = options
        self.keytype = keytype
        self.source = source

    def valid(self):
        return bool(self.base64 and self.keytype)

    @property
    def identity(self):
        """Two lines granting the same key share an identity, whatever
        their options or comments."""
        return (self.keytype, self.base64)

    def __str__(self):
        toks = []
        if self.options:
            toks.append(self.options)
        if self.keytype:
            toks.append(self.keytype)
        if self.base64:
            toks.append(self.base64)
        if self.comment:
            toks.append(self.comment)
        if not toks:
            return self.source
        else:
            return " ".join(toks)


class AuthKeyLineParser:
    """
    AUTHORIZED_KEYS FILE FORMAT
     Each line of the file contains one key (empty lines and lines starting
     with a '#' are ignored as comments). Public keys consist of the
     following space-separated fields: options, keytype, base64-encoded key,
     comment.  The options field is optional.
    """

    def _extract_options(self, ent):
        """
        The options (if present) consist of comma-separated option specifica-
         tions.  No spaces are permitted, except within double quotes.
         Note that option keywords are case-insensitive.
        """
        quoted = False
        i = 0
        while i < len(ent) and ((quoted) or (ent[i] not in (" ", "\t"))):
            curc = ent[i]
            if i + 1 >= len(ent):
                i = i + 1
                break
            nextc = ent[i + 1]
            if curc == "\\" and nextc == '"':
                i = i + 1
            elif curc == '"':
                quoted = not quoted
            i = i + 1

        options = ent[0:i]

        # Return the rest of the string in 'remain'
        remain = ent[i:].lstrip()
        return (options, remain)

    def parse(self, src_line):
        # modeled after opensshes auth2-pubkey.c:user_key_allowed2
        line = src_line.rstrip("\r\n")
        if line.startswith("#") or line.strip() == "":
            return AuthKeyLine(src_line)

        def parse_ssh_key(ent):
            # return ketype, key, [comment]
            toks = ent.split(None, 2)
            if len(toks) < 2:
                raise TypeError("To few fields: %s" % len(toks))
            if toks[0] not in VALID_KEY_TYPES:
                raise TypeError("Invalid keytype %s" % toks[0])

            # valid key type and 2 or 3 fields:
            if len(toks) == 2:
                # no comment in line
                toks.append("")

            return toks

        options = None
        ent = line.strip()
        try:
            (keytype, base64, comment) = parse_ssh_key(ent)
        except TypeError:
            (options, remain) = self._extract_options(ent)
            try:
                (keytype, base64, comment) = parse_ssh_key(remain)
            except TypeError:
                return AuthKeyLine(src_line)

        return AuthKeyLine(
            src_line,
            keytype=keytype,
            base64=base64,
            comment=comment,
            options=options,
        )


def split_managed(content):
    """Split authorized_keys content into the user owned lines and the
    parsed entries of the managed block.

    A BEGIN marker without a matching END marker does not open a block: the
    marker is dropped and the lines after it stay user owned.

    @return: (lines before the block, lines after the block, managed entries)
    """
    parser = AuthKeyLineParser()
    lines = content.splitlines()
    stripped = [line.strip() for line in lines]
    try:
        begin = stripped.index(MANAGED_BEGIN)
        end = stripped.index(MANAGED_END, begin + 1)
    except ValueError:
        if MANAGED_BEGIN in stripped:
            LOG.warning(
                "Managed ssh key block is not terminated, keeping its lines"
                " as user keys"
            )
        before = [
            line
            for line, marker in zip(lines, stripped)
            if marker not in (MANAGED_BEGIN, MANAGED_END)
        ]
        return before, [], []
    managed = []
    for line in lines[begin + 1 : end]:
        entry = parser.parse(line)
        if entry.valid():
            managed.append(entry)
    return lines[:begin], lines[end + 1 :], managed


def update_managed_keys(content, keys):
    """Replace the managed block of authorized_keys content with keys.

    Lines outside of the managed block are kept as they are. Keys which the
    user already authorized outside of the block, invalid keys and duplicates
    are left out of the block. The block is dropped entirely when no key is
    left, and is appended at the end of the file when not already present.
    """
    parser = AuthKeyLineParser()
    before, after, _old = split_managed(content)
    present = set()
    for line in before + after:
        entry = parser.parse(line)
        if entry.valid():
            present.add(entry.identity)

    block = []
    for key in keys:
        entry = parser.parse(key.strip())
        if not entry.valid():
            LOG.warning("Skipping invalid ssh key: %r", key)
            continue
        if entry.identity in present:
            continue
        present.add(entry.identity)
        block.append(str(entry))

    lines = list(before)
    if block:
        lines.append(MANAGED_BEGIN)
        lines.extend(block)
        lines.append(MANAGED_END)
    lines.extend(after)
    if not lines:
        return ""
    # Ensure it ends with a newline
    return "\n".join(lines) + "\n"


def users_ssh_info(username):
    try:
        pw_ent = pwd.getpwnam(username)
    except KeyError as e:
        raise RuntimeError("Unknown user %r" % username) from e
    if not pw_ent.pw_dir:
        raise RuntimeError("Unable to get SSH info for user %r" % (username))
    return (os.path.join(pw_ent.pw_dir, ".ssh"), pw_ent)


def setup_user_keys(keys, username):
    """Merge keys into the managed block of username's authorized_keys.

    @return: the path of the authorized_keys file written.
    """
    (ssh_dir, pw_ent) = users_ssh_info(username)
    if not os.path.isdir(ssh_dir):
        util.ensure_dir(ssh_dir, mode=0o700)
        util.chownbyid(ssh_dir, pw_ent.pw_uid, pw_ent.pw_gid)

    auth_key_fn = os.path.join(ssh_dir, "authorized_keys")
    content = util.load_text_file(auth_key_fn, quiet=True)
    updated = update_managed_keys(content, keys)
    atomic_helper.write_file(
        auth_key_fn,
        updated,
        mode=0o600,
        omode="w",
        uid=pw_ent.pw_uid,
        gid=pw_ent.pw_gid,
    )
    LOG.debug("Updated %s with %d key(s)", auth_key_fn, len(keys))
    return auth_key_fn
