"""
Application recipes — the built-in catalog data.

Pure data, no logic. Each entry maps an application id to its display
name, optional in-catalog dependencies, secrets it needs supplied
out-of-band, and an OS-keyed list of tasks in runner-native form
(``{"name": ..., "<module>": params, <keywords>...}``).
"""

from __future__ import annotations

APPLICATION_RECIPES: dict[str, dict] = {

    # ── Web servers ─────────────────────────────────────────────

    "nginx": {
        "label": "Install and configure Nginx",
        "tasks": {
            "linux": [
                {
                    "name": "Install Nginx",
                    "ansible.builtin.package": {"name": "nginx", "state": "present"},
                },
                {
                    "name": "Start and enable Nginx",
                    "ansible.builtin.systemd_service": {
                        "name": "nginx", "state": "started", "enabled": True,
                    },
                },
                {
                    "name": "Configure firewall for HTTP/HTTPS",
                    "ansible.builtin.iptables": {
                        "chain": "INPUT",
                        "protocol": "tcp",
                        "destination_ports": ["80", "443"],
                        "jump": "ACCEPT",
                    },
                },
            ],
            "windows": [
                {
                    "name": "Download Nginx for Windows",
                    "ansible.windows.win_get_url": {
                        "url": "http://nginx.org/download/nginx-1.24.0.zip",
                        "dest": "C:\\temp\\nginx.zip",
                    },
                },
                {
                    "name": "Extract Nginx",
                    "community.windows.win_unzip": {
                        "src": "C:\\temp\\nginx.zip",
                        "dest": "C:\\nginx",
                    },
                },
            ],
        },
    },

    # ── CMS ─────────────────────────────────────────────────────

    "wordpress": {
        "label": "Install WordPress with dependencies",
        "requires": ["nginx", "php", "mysql"],
        "secrets": ["wordpress_db_password"],
        "variables": {"wordpress_domain": "{{ server_domain | default('example.com') }}"},
        "tasks": {
            "linux": [
                {
                    "name": "Install PHP and extensions",
                    "ansible.builtin.package": {
                        "name": ["php-fpm", "php-mysql", "php-curl", "php-gd", "php-xml"],
                        "state": "present",
                    },
                },
                {
                    "name": "Download WordPress",
                    "ansible.builtin.get_url": {
                        "url": "https://wordpress.org/latest.tar.gz",
                        "dest": "/tmp/wordpress.tar.gz",
                    },
                },
                {
                    "name": "Extract WordPress",
                    "ansible.builtin.unarchive": {
                        "src": "/tmp/wordpress.tar.gz",
                        "dest": "/var/www/html",
                        "remote_src": True,
                        "owner": "www-data",
                        "group": "www-data",
                    },
                },
                {
                    "name": "Create WordPress database",
                    "community.mysql.mysql_db": {"name": "wordpress", "state": "present"},
                },
                {
                    "name": "Create WordPress user",
                    "community.mysql.mysql_user": {
                        "name": "wpuser",
                        "password": "{{ wordpress_db_password }}",
                        "priv": "wordpress.*:ALL",
                        "state": "present",
                    },
                },
            ],
        },
    },

    # ── Databases ───────────────────────────────────────────────

    "mysql": {
        "label": "Install and configure MySQL",
        "secrets": ["mysql_root_password"],
        "tasks": {
            "linux": [
                {
                    "name": "Install MySQL server",
                    "ansible.builtin.package": {"name": "mysql-server", "state": "present"},
                },
                {
                    "name": "Start and enable MySQL",
                    "ansible.builtin.systemd_service": {
                        "name": "mysql", "state": "started", "enabled": True,
                    },
                },
                {
                    "name": "Secure MySQL installation",
                    "community.mysql.mysql_user": {
                        "name": "root",
                        "password": "{{ mysql_root_password }}",
                        "login_unix_socket": "/var/run/mysqld/mysqld.sock",
                    },
                },
                {
                    "name": "Remove anonymous users",
                    "community.mysql.mysql_user": {
                        "name": "", "host_all": True, "state": "absent",
                    },
                },
            ],
        },
    },
    "postgresql": {
        "label": "Install and configure PostgreSQL",
        "tasks": {
            "linux": [
                {
                    "name": "Install PostgreSQL",
                    "ansible.builtin.package": {
                        "name": ["postgresql", "postgresql-contrib", "python3-psycopg2"],
                        "state": "present",
                    },
                },
                {
                    "name": "Start and enable PostgreSQL",
                    "ansible.builtin.systemd_service": {
                        "name": "postgresql", "state": "started", "enabled": True,
                    },
                },
                {
                    "name": "Create application database",
                    "community.postgresql.postgresql_db": {"name": "appdb", "state": "present"},
                    "become_user": "postgres",
                },
            ],
        },
    },

    # ── Development tools ───────────────────────────────────────

    "docker": {
        "label": "Install Docker and Docker Compose",
        "tasks": {
            "linux": [
                {
                    "name": "Install required packages",
                    "ansible.builtin.package": {
                        "name": [
                            "apt-transport-https", "ca-certificates", "curl",
                            "gnupg", "lsb-release",
                        ],
                        "state": "present",
                    },
                },
                {
                    "name": "Add Docker GPG key",
                    "ansible.builtin.apt_key": {
                        "url": "https://download.docker.com/linux/ubuntu/gpg",
                        "state": "present",
                    },
                },
                {
                    "name": "Add Docker repository",
                    "ansible.builtin.apt_repository": {
                        "repo": (
                            "deb https://download.docker.com/linux/ubuntu "
                            "{{ ansible_distribution_release }} stable"
                        ),
                        "state": "present",
                    },
                },
                {
                    "name": "Install Docker",
                    "ansible.builtin.package": {
                        "name": [
                            "docker-ce", "docker-ce-cli", "containerd.io",
                            "docker-compose-plugin",
                        ],
                        "state": "present",
                    },
                },
                {
                    "name": "Start and enable Docker",
                    "ansible.builtin.systemd_service": {
                        "name": "docker", "state": "started", "enabled": True,
                    },
                },
                {
                    "name": "Add user to docker group",
                    "ansible.builtin.user": {
                        "name": "{{ ansible_user }}", "groups": "docker", "append": True,
                    },
                },
            ],
        },
    },
    "nodejs": {
        "label": "Install Node.js and NPM",
        "tasks": {
            "linux": [
                {
                    "name": "Install Node.js repository",
                    "ansible.builtin.shell": (
                        "curl -fsSL https://deb.nodesource.com/setup_lts.x | bash -"
                    ),
                },
                {
                    "name": "Install Node.js",
                    "ansible.builtin.package": {"name": "nodejs", "state": "present"},
                },
                {
                    "name": "Install global npm packages",
                    "community.general.npm": {"name": "{{ item }}", "global": True},
                    "loop": ["pm2", "nodemon"],
                },
            ],
        },
    },

    # ── Runtimes ────────────────────────────────────────────────

    "php": {
        "label": "Install PHP and common extensions",
        "tasks": {
            "linux": [
                {
                    "name": "Install PHP and extensions",
                    "ansible.builtin.package": {
                        "name": [
                            "php", "php-fpm", "php-mysql", "php-pgsql", "php-sqlite3",
                            "php-curl", "php-gd", "php-xml", "php-mbstring", "php-zip",
                            "php-json", "php-bcmath", "php-intl",
                        ],
                        "state": "present",
                    },
                },
                {
                    "name": "Configure PHP-FPM",
                    "ansible.builtin.lineinfile": {
                        "path": "/etc/php/8.1/fpm/php.ini",
                        "regexp": "^;?{{ item.key }}",
                        "line": "{{ item.key }} = {{ item.value }}",
                    },
                    "loop": [
                        {"key": "upload_max_filesize", "value": "64M"},
                        {"key": "post_max_size", "value": "64M"},
                        {"key": "memory_limit", "value": "256M"},
                        {"key": "max_execution_time", "value": "300"},
                    ],
                },
                {
                    "name": "Start and enable PHP-FPM",
                    "ansible.builtin.systemd_service": {
                        "name": "php8.1-fpm", "state": "started", "enabled": True,
                    },
                },
            ],
        },
    },

    # ── Security ────────────────────────────────────────────────

    "certbot": {
        "label": "Install Certbot for SSL certificates",
        "requires": ["nginx"],
        "tasks": {
            "linux": [
                {
                    "name": "Install Certbot",
                    "ansible.builtin.package": {
                        "name": ["certbot", "python3-certbot-nginx"],
                        "state": "present",
                    },
                },
                {
                    "name": "Create SSL certificate renewal cron job",
                    "ansible.builtin.cron": {
                        "name": "Renew SSL certificates",
                        "minute": "0",
                        "hour": "12",
                        "job": "/usr/bin/certbot renew --quiet",
                    },
                },
            ],
        },
    },
    "fail2ban": {
        "label": "Install and configure Fail2Ban",
        "tasks": {
            "linux": [
                {
                    "name": "Install Fail2Ban",
                    "ansible.builtin.package": {"name": "fail2ban", "state": "present"},
                },
                {
                    "name": "Configure Fail2Ban jail",
                    "ansible.builtin.template": {
                        "src": "jail.local.j2", "dest": "/etc/fail2ban/jail.local",
                    },
                },
                {
                    "name": "Start and enable Fail2Ban",
                    "ansible.builtin.systemd_service": {
                        "name": "fail2ban", "state": "started", "enabled": True,
                    },
                },
            ],
        },
    },

    # ── Monitoring ──────────────────────────────────────────────

    "htop": {
        "label": "Install system monitoring tools",
        "tasks": {
            "linux": [
                {
                    "name": "Install monitoring tools",
                    "ansible.builtin.package": {
                        "name": ["htop", "iotop", "nethogs", "ncdu"],
                        "state": "present",
                    },
                },
            ],
        },
    },

    # ── Version control ─────────────────────────────────────────

    "git": {
        "label": "Install Git version control",
        "tasks": {
            "linux": [
                {
                    "name": "Install Git",
                    "ansible.builtin.package": {"name": "git", "state": "present"},
                },
                {
                    "name": "Configure Git global settings",
                    "community.general.git_config": {
                        "name": "{{ item.name }}",
                        "value": "{{ item.value }}",
                        "scope": "global",
                    },
                    "loop": [
                        {"name": "init.defaultBranch", "value": "main"},
                        {"name": "pull.rebase", "value": "false"},
                    ],
                },
            ],
        },
    },
}
