"""Documents domain - client file uploads, previews and downloads"""
