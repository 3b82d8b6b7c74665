class Routes:
    ROOT = "/"
    DASHBOARD = "/dashboard"
    LOGIN = "/login"
    LOGIN_VERIFICATION = "/login/verification"
    SETUP = "/setup"
    SETUP_SIDECHAIN = "/setup/sidechain"
    SETUP_SIGNING_AUTHORITY = "/setup/signing-authority"
    SETUP_TREASURE = "/setup/treasury"
    SETUP_MAINNET = "/setup/mainnet"
    SETUP_INFURA = "/setup/infura"
